"""Domain models: stock records, response envelopes and payload variants."""
