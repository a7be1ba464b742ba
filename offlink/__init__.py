from .cache import MemoryCache, OptimisticCacheWriter
from .client import OfflineClient, build_client
from .config import QueueConfig
from .connectivity import ConnectivityGate
from .link import OfflineMutationLink, ResponseSink
from .models import Operation, OperationDefinition, OperationResponse, OperationType
from .queue import RedisStreamStore, SqlQueueStore
from .serializer import OperationSerializer
from .transport import FunctionTransport

__all__ = [
    "ConnectivityGate",
    "FunctionTransport",
    "MemoryCache",
    "OfflineClient",
    "OfflineMutationLink",
    "Operation",
    "OperationDefinition",
    "OperationResponse",
    "OperationSerializer",
    "OperationType",
    "OptimisticCacheWriter",
    "QueueConfig",
    "RedisStreamStore",
    "ResponseSink",
    "SqlQueueStore",
    "build_client",
]
