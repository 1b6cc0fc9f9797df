from .errors import TSPError, ParseError, UnsupportedMetric
from .tsplib import Instance, EdgeWeightType, EdgeWeightFormat, parse_tsplib, load_instance
from .distance import DistanceModel, tour_length
from .construct import nearest_neighbor, multi_start_nearest_neighbor
from .colony import ACOConfig, AntColony, MaxMinAntColony
from .improve import ImproveConfig, ImproveResult, improve
from .solver import SolverConfig, Solution, solve_instance, solve_text, solve_file
