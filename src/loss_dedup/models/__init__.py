from loss_dedup.models.base import Base
from loss_dedup.models.cluster_signal import ClusterSignal
from loss_dedup.models.clustering_run import ClusteringRun
from loss_dedup.models.loss_cluster import LossCluster
from loss_dedup.models.loss_signal import LossSignal
from loss_dedup.models.run_lock import RunLock

__all__ = [
    "Base",
    "ClusterSignal",
    "ClusteringRun",
    "LossCluster",
    "LossSignal",
    "RunLock",
]
