"""Engine subpackage - core pricing and aggregation logic."""
from .pricing_engine import PricingEngine
from .models import SelectionSet, CatalogOption, InteriorPackage, AggregateResult

__all__ = ['PricingEngine', 'SelectionSet', 'CatalogOption', 'InteriorPackage', 'AggregateResult']
