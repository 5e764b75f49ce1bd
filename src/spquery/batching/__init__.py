"""Batch wire formats."""

from spquery.batching.json_batch import GraphBatchCodec
from spquery.batching.multipart import SPBatchCodec

__all__ = ["GraphBatchCodec", "SPBatchCodec"]
