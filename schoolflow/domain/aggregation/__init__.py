"""This module derives financial views from the entity store."""
from .service import AggregationService, sufficiency_check
from .revenue import HttpRevenueSource, RevenueSource, RevenueUnavailable, StaticRevenueSource
