"""Defines common Value Objects used across the stockcast domain.

These objects represent simple values such as cache keys, stock codes and
prediction method names, keeping signatures self-describing.
"""

from typing import NewType

# === Caching Context ===
CacheKey = NewType("CacheKey", str)              # Unique key for a cache entry
CacheNamespace = NewType("CacheNamespace", str)  # Prefix owned by one cache store

# === Market Context ===
StockCode = NewType("StockCode", str)            # Ticker symbol, e.g. '2330'
PredictionMethod = NewType("PredictionMethod", str)  # 'llm' or 'neuralprophet'

# Prediction methods exposed by the backend
METHOD_LLM = PredictionMethod("llm")
METHOD_NEURALPROPHET = PredictionMethod("neuralprophet")

# Labels reported with a prediction series
MODEL_NEURALPROPHET = "NeuralProphet"
MODEL_LLM = "LLM"
MODEL_UNKNOWN = "Unknown"

# === Cache keys ===
# One key per resource and parameter set; keys never alias each other.

def stocks_key() -> CacheKey:
    return CacheKey("stocks")

def stock_detail_key(code: StockCode) -> CacheKey:
    return CacheKey(f"stock_detail:{code}")

def stock_prediction_key(code: StockCode) -> CacheKey:
    return CacheKey(f"stock_prediction:{code}")

def historical_data_key(code: StockCode, days: int) -> CacheKey:
    return CacheKey(f"historical_data:{code}:{days}")

def historical_predictions_key(code: StockCode, days: int) -> CacheKey:
    return CacheKey(f"historical_predictions:{code}:{days}")
