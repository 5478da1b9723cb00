"""Abstract interfaces shared by collectors, diagnosers and exporters."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Mapping
from typing import BinaryIO


class DataValue(ABC):
    """A piece of collected data that can be measured and read as bytes."""

    @property
    @abstractmethod
    def length(self) -> int:
        """Size of the value in bytes."""

    @abstractmethod
    def open(self) -> BinaryIO:
        """Return a fresh binary stream over the value; the caller closes it."""


class DataProducer(ABC):
    """An object that produces named data values."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Name of the producer, used as a prefix for its data keys."""

    @property
    @abstractmethod
    def data(self) -> Mapping[str, DataValue]:
        """The values produced, keyed by name."""


class Collector(DataProducer):
    """Gathers diagnostic data from the node or cluster."""

    @abstractmethod
    def check_supported(self) -> None:
        """Raise if the collector cannot run in the current environment."""

    @abstractmethod
    def collect(self) -> None:
        """Gather the data; raise on failure."""


class Diagnoser(DataProducer):
    """Analyses collected data and produces findings."""

    @abstractmethod
    def diagnose(self) -> None:
        """Run the diagnosis; raise on failure."""


class Exporter(ABC):
    """Sends the data of a producer somewhere."""

    @abstractmethod
    def export(self, producer: DataProducer) -> None:
        """Export all values of the producer; raise on failure."""


class FileSystemAccessor(ABC):
    """Read-only access to a file system."""

    @abstractmethod
    def open_file(self, file_path: str) -> BinaryIO:
        """Open the file for binary reading."""

    @abstractmethod
    def file_exists(self, file_path: str) -> bool:
        """Tell whether the file exists."""

    @abstractmethod
    def file_size(self, file_path: str) -> int:
        """Size of the file in bytes."""

    @abstractmethod
    def list_files(self, directory_path: str) -> list[str]:
        """List all non-directory paths under the directory, slash-separated."""