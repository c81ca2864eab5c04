from .retailer_stats import RetailerStats, RetailerStatsTracker

__all__ = ['RetailerStats', 'RetailerStatsTracker']
