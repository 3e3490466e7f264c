"""
Services Module

- index_data: builds the index snapshot from the base node
- mining_stats: per-block coinbase statistics
- background_updater: keeps the snapshot fresh across instances
- index_resolver: picks the snapshot source for a request
"""
