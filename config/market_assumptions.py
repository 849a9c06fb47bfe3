# =============================================================================
# Market and withdrawal-policy assumptions used in simulations
# =============================================================================

# Stock returns (annual, normal distribution)
stock_return_mean = 0.05
stock_return_stddev = 0.05
stock_return_cap = float("inf")   # no clip unless overridden

# Conservative growth used to discount the target ending balance back to the
# current year (reserve floor)
reserve_rate = 0.02

# A year counts as a failure when actual spending falls below this share of
# the escalated plan (0.75 => more than a 25% cut)
failure_threshold = 0.75

# Spending phases: (age threshold, share of the inflation rate used to escalate
# spending from that age on). Ages below the first threshold use the full rate.
#   go-go   67-74  full inflation
#   slow-go 75-84  half inflation
#   no-go   85+    no escalation
spending_phases = (
    (67, 1.0),
    (75, 0.5),
    (85, 0.0),
)

# Terminal balance histogram: fixed-width buckets starting at $0
histogram_bucket_width = 250_000.0
histogram_bucket_count = 20
