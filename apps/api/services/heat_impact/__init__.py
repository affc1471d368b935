# Heat Impact Engine
#
# Quantifies how heat and humidity affected one endurance activity:
# - Elevation-corrected weather per sample (lapse rate, dew point, heat index)
# - Physiological stress detectors (HR drift, pace fade, VAM decline, cadence drop)
# - Environmental risk zones, humidity strain, cooling from climbs
# - Environment/physiology correlation with confidence
# - Composite 0-100 score, severity tier and recommendations
# - Recommendations personalized by body weight and heat acclimation

from .config import HeatAnalysisConfig, DEFAULT_CONFIG
from .streams import StreamBundle, StreamSample, WeatherObservation, StreamStructureError
from .lapse_rate import AdjustedWeatherPoint, generate_point_by_point_weather
from .heat_metrics import HeatRiskLevel, RiskZone, TimeInZone, HumidityStrain, CoolingBenefit
from .stress_detection import PhysiologicalStress, analyze_physiological_stress
from .correlation import CorrelationEventType, EnvironmentalCorrelation, PrimaryFactor
from .impact_scoring import HeatImpactScore, HistoricalComparison, SeverityLevel
from .acclimation import HeatAcclimationProfile, HeatHistoryEntry, calculate_heat_acclimation_index
from .recommendations import AthleteHeatProfile, PersonalizedRecommendations, generate_personalized_recommendations
from .pipeline import HeatImpactAnalysis, analyze

__all__ = [
    # Entry point
    'analyze',
    'HeatImpactAnalysis',
    'HeatAnalysisConfig',
    'DEFAULT_CONFIG',

    # Inputs
    'StreamBundle',
    'StreamSample',
    'WeatherObservation',
    'StreamStructureError',

    # Components
    'AdjustedWeatherPoint',
    'generate_point_by_point_weather',
    'analyze_physiological_stress',
    'PhysiologicalStress',
    'HeatRiskLevel',
    'RiskZone',
    'TimeInZone',
    'HumidityStrain',
    'CoolingBenefit',
    'CorrelationEventType',
    'EnvironmentalCorrelation',
    'PrimaryFactor',
    'HeatImpactScore',
    'HistoricalComparison',
    'SeverityLevel',

    # Acclimation
    'HeatAcclimationProfile',
    'HeatHistoryEntry',
    'calculate_heat_acclimation_index',

    # Personalized advice
    'AthleteHeatProfile',
    'PersonalizedRecommendations',
    'generate_personalized_recommendations',
]
