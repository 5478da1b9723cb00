"""Runtime configuration of a collection run."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class Feature(str, Enum):
    """Optional features that can be switched on for a run."""

    WINDOWS_HPC = "WINHPC"


@dataclass
class RuntimeInfo:
    """Settings read from the run's configuration and secrets."""

    run_id: str = ""
    host_node_name: str = ""
    collector_list: list[str] = field(default_factory=list)
    kubernetes_objects: list[str] = field(default_factory=list)
    node_logs: list[str] = field(default_factory=list)
    container_logs_namespaces: list[str] = field(default_factory=list)
    storage_account_name: str = ""
    storage_sas_key: str = ""
    storage_container_name: str = ""
    storage_sas_key_type: str = ""
    features: dict[Feature, bool] = field(default_factory=dict)

    def has_feature(self, feature: Feature) -> bool:
        """Tell whether the feature was switched on for this run."""
        return feature in self.features