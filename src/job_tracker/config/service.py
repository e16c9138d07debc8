"""
Per-job-type service configuration.
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class JobServiceConfig:
    """
    Backend endpoints and validation rules of one job type.

    Example:
        ```python
        JobServiceConfig(
            service_name="Einladung",
            job_type="einladung",
            api_base_path="/bb/aktualisierung",
            endpoint_name="einladung",
            search_endpoint_name="searchBBAktualisierungEinladung",
            search_file_endpoint_name="searchExcelfile",
            translation_prefix="VT.BB.EINLADUNG",
            required_columns=["partnernr"],
            task_name="invite",
        )
        ```
    """

    # Display name used for logger names and job id prefixes
    service_name: str

    # Store partition key; defaults to the lower-cased service name
    job_type: str = ""

    # Endpoints
    api_base_path: str = ""
    endpoint_name: str = ""
    search_endpoint_name: str = ""
    search_file_endpoint_name: str = "searchExcelfile"

    # Messages
    translation_prefix: str = ""
    row_label: str = "Row"

    # Validation
    required_columns: list[str] = field(default_factory=list)

    # Overview query task filter
    task_name: str | None = None

    # Extra row fields copied into detail entries; the first one labels the row
    detail_fields: list[str] = field(default_factory=list)

    def __post_init__(self):
        """Validate configuration after initialization."""
        if not self.service_name:
            raise ValueError("service_name is required")
        if not self.job_type:
            self.job_type = self.service_name.lower()
        if self.api_base_path and not self.api_base_path.startswith("/"):
            self.api_base_path = "/" + self.api_base_path
        self.api_base_path = self.api_base_path.rstrip("/")
        if not self.translation_prefix:
            self.translation_prefix = self.service_name.upper()

    @property
    def logger_name(self) -> str:
        return f"{self.service_name}Service"


__all__ = ["JobServiceConfig"]
