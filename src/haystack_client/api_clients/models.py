"""Request and response models for the Haystack daemon API."""

from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, Field, field_validator

# Daemon application-level status codes
CODE_SUCCESS = 0
WORKSPACE_NOT_FOUND = 1


class DaemonResponse(BaseModel):
    """Common response envelope returned by every daemon endpoint."""

    code: int = Field(..., description="0 on success, non-zero on failure")
    message: Optional[str] = Field(None, description="Human-readable status")
    data: Optional[Any] = Field(None, description="Endpoint-specific payload")

    @property
    def ok(self) -> bool:
        return self.code == CODE_SUCCESS


class SearchOptions(BaseModel):
    """Caller-supplied search options."""

    case_sensitive: bool = False
    include: Optional[str] = Field(None, description="Glob of files to include")
    exclude: Optional[str] = Field(None, description="Glob of files to exclude")
    max_results: Optional[int] = Field(None, description="Global result cap")
    max_results_per_file: Optional[int] = Field(None, description="Per-file cap")

    @field_validator("max_results", "max_results_per_file")
    @classmethod
    def limits_must_be_positive(cls, v):
        if v is not None and v <= 0:
            raise ValueError("Limits must be positive")
        return v


class SearchQuery(BaseModel):
    """A fully specified search request."""

    workspace: str
    query_text: str
    case_sensitive: bool = False
    include_glob: Optional[str] = None
    exclude_glob: Optional[str] = None
    max_results: Optional[int] = None
    max_results_per_file: Optional[int] = None

    @classmethod
    def build(
        cls, workspace: str, query_text: str, options: SearchOptions
    ) -> "SearchQuery":
        return cls(
            workspace=workspace,
            query_text=query_text,
            case_sensitive=options.case_sensitive,
            include_glob=options.include,
            exclude_glob=options.exclude,
            max_results=options.max_results,
            max_results_per_file=options.max_results_per_file,
        )

    def to_payload(self) -> Dict[str, Any]:
        """Render the ``/search/content`` request body, omitting unset filters."""
        filters: Dict[str, Any] = {}
        if self.include_glob:
            filters["include"] = self.include_glob
        if self.exclude_glob:
            filters["exclude"] = self.exclude_glob

        limit: Dict[str, Any] = {}
        if self.max_results is not None:
            limit["max_results"] = self.max_results
        if self.max_results_per_file is not None:
            limit["max_results_per_file"] = self.max_results_per_file

        return {
            "workspace": self.workspace,
            "query": self.query_text,
            "case_sensitive": self.case_sensitive,
            "filters": filters,
            "limit": limit,
        }


class LineMatch(BaseModel):
    """A single matching line within a file."""

    line_number: int
    content: str
    match_span: Optional[Tuple[int, int]] = None


class FileMatch(BaseModel):
    """All matching lines of one file."""

    file_path: str
    line_matches: List[LineMatch] = Field(default_factory=list)
    file_truncated: bool = False

    @classmethod
    def from_daemon(cls, raw: Dict[str, Any]) -> "FileMatch":
        line_matches = []
        for entry in raw.get("lines") or []:
            line = entry.get("line") or {}
            span = line.get("match")
            line_matches.append(
                LineMatch(
                    line_number=line.get("line_number", 0),
                    content=line.get("content", ""),
                    match_span=tuple(span) if span else None,
                )
            )
        return cls(
            file_path=raw.get("file", ""),
            line_matches=line_matches,
            file_truncated=bool(raw.get("truncate", False)),
        )


class SearchResponse(BaseModel):
    """Normalized search result set."""

    status_code: int = CODE_SUCCESS
    message: Optional[str] = None
    results: List[FileMatch] = Field(default_factory=list)
    truncated: bool = False

    @property
    def total_matches(self) -> int:
        return sum(len(result.line_matches) for result in self.results)

    @classmethod
    def from_daemon(cls, response: DaemonResponse) -> "SearchResponse":
        data = response.data if isinstance(response.data, dict) else None
        if not response.ok or data is None:
            # A daemon-reported failure is "no results", not a fault
            return cls(status_code=response.code, message=response.message)

        return cls(
            status_code=response.code,
            message=response.message,
            results=[FileMatch.from_daemon(raw) for raw in data.get("results") or []],
            truncated=bool(data.get("truncate", False)),
        )


class WorkspaceStatus(BaseModel):
    """Indexing progress of the active workspace."""

    indexing: bool = False
    total_files: int = 0
    indexed_files: int = 0
    error: Optional[str] = None


class WorkspaceInfo(BaseModel):
    """Workspace record as listed by the daemon."""

    id: str = ""
    path: str = ""
    created_at: Optional[str] = None
    last_accessed: Optional[str] = None
    last_full_sync: Optional[str] = None
    total_files: int = 0
    indexing: bool = False


class ServerStatus(BaseModel):
    """Daemon process status."""

    pid: int = 0
    version: str = ""
    shutting_down: bool = False
    restarting: bool = False
