"""Typed projections of command results."""

from .chart import ChartLastData, RateInfo
from .symbols import AllSymbolsData
