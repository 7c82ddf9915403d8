from datetime import time

# Simulation horizon after the blackout: 36 h
SIMULATION_DURATION_MINUTES = 2160
MINUTES_PER_DAY = 1440

# Below this weighted stability renewable output gets curtailed
MINIMUM_STABILITY = 0.7
STABILITY_WHEN_NO_GENERATION = 1.0

DEFAULT_EFFICIENCY = 1.0

FULL_DAY_START = time.min
FULL_DAY_END = time.max

INPUT_CSV_NAMES = {
    'plants': 'plants.csv',
    'demand_forecast': 'demand_forecast.csv',
}

PLANTS_CSV_COLUMNS = ['type', 'name', 'latitude', 'longitude', 'city', 'max_capacity_mw', 'efficiency']
DEMAND_CSV_COLUMNS = ['time', 'demand_mw']

OUTPUT_CSV_NAMES = {
    'generation': 'OutputGeneration',
    'summary': 'OutputSummary',
    'plants': 'OutputPlants',
}

LOG_COLORS = {
    'DEBUG': '\033[94m',
    'INFO': '\033[92m',
    'WARNING': '\033[93m',
    'ERROR': '\033[91m',
    'CRITICAL': '\033[91m',
}

ERROR_PREFIX = "[ERROR]: "
