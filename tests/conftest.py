import pytest

from tspsolver import DistanceModel, parse_tsplib


def coord_text(coords, name="test", edge_weight_type="EUC_2D", ids=None, dimension=None):
    ids = ids or range(1, len(coords) + 1)
    lines = [
        f"NAME : {name}",
        "TYPE : TSP",
        f"DIMENSION : {len(coords) if dimension is None else dimension}",
        f"EDGE_WEIGHT_TYPE : {edge_weight_type}",
        "NODE_COORD_SECTION",
    ]
    lines += [f"{i} {x} {y}" for i, (x, y) in zip(ids, coords)]
    lines.append("EOF")
    return "\n".join(lines) + "\n"


def explicit_text(weights, dimension, fmt="UPPER_ROW", name="explicit"):
    return "\n".join([
        f"NAME: {name}",
        "TYPE: TSP",
        f"DIMENSION: {dimension}",
        "EDGE_WEIGHT_TYPE: EXPLICIT",
        f"EDGE_WEIGHT_FORMAT: {fmt}",
        "EDGE_WEIGHT_SECTION",
        weights,
        "EOF",
    ]) + "\n"


SQUARE = [(0, 0), (0, 10), (10, 10), (10, 0)]
# 30 x 10 rectangle, nodes every 10 units along the perimeter; optimal tour 80
RECTANGLE = [(0, 0), (10, 0), (20, 0), (30, 0), (30, 10), (20, 10), (10, 10), (0, 10)]


@pytest.fixture
def square_text():
    return coord_text(SQUARE, name="square")


@pytest.fixture
def square_model(square_text):
    return DistanceModel(parse_tsplib(square_text))


@pytest.fixture
def rectangle_model():
    return DistanceModel(parse_tsplib(coord_text(RECTANGLE, name="rectangle")))


@pytest.fixture
def triangle_text():
    return explicit_text("1 2\n3", 3)
