"""
Rate limit constants — cost bucket defaults and per-operation cost estimates.

Estimates are heuristics used for pre-flight waiting only. Once a response
carrying the cost envelope is observed, the limiter is corrected from it.
"""

DEFAULT_MAX_COST: float = 2000
DEFAULT_RESTORE_RATE: float = 100      # points per second
DEFAULT_SAFETY_MARGIN: float = 100

ESTIMATED_COSTS: dict[str, int] = {
    # Query costs
    "getProduct": 10,
    "getProducts": 50,
    "getProductBySku": 15,
    "getInventoryLevel": 5,

    # Mutation costs
    "createProduct": 20,
    "updateProduct": 15,
    "updateVariant": 10,
    "updateInventory": 10,
    "setMetafields": 15,

    # Bulk operations
    "bulkOperationRunQuery": 100,
    "bulkOperationRunMutation": 100,
}
