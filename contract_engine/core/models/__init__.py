from .base import ACCELERATED_OPTION, KernelModel, Model
from .statistics.auto_regression import AutoRegressionModel
from .statistics.average import AverageModel
from .statistics.linear_regression import LinearRegressionModel
from .statistics.sum import SumModel

MODEL_CATALOG = {
    "sum": SumModel,
    "average": AverageModel,
    "linear-regression": LinearRegressionModel,
    "auto-regression": AutoRegressionModel,
}

__all__ = [
    "ACCELERATED_OPTION",
    "KernelModel",
    "Model",
    "MODEL_CATALOG",
    "SumModel",
    "AverageModel",
    "LinearRegressionModel",
    "AutoRegressionModel",
]
