"""Utils package initialization."""
from kondo_scraping.utils.logger import get_logger, LayerLogger, set_trace_id, get_trace_id
from kondo_scraping.utils.retry import RetryPolicy

__all__ = ["get_logger", "LayerLogger", "set_trace_id", "get_trace_id", "RetryPolicy"]
