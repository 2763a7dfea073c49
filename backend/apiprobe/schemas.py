import enum
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class Method(str, enum.Enum):
    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    DELETE = "DELETE"
    PATCH = "PATCH"


class HeaderEntry(BaseModel):
    key: str = ""
    value: str = ""


class RequestDraft(BaseModel):
    """Raw editor state. Read as a snapshot when a send starts."""

    url: str = ""
    method: Method = Method.GET
    headers: List[HeaderEntry] = []
    body: str = ""


class ComposedRequest(BaseModel):
    model_config = ConfigDict(frozen=True)

    url: str
    method: Method
    headers: Dict[str, str] = {}
    body: Any = Field(default_factory=dict)


class VariableBinding(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    key: str = Field(min_length=1)
    value: str = ""
    enabled: bool = True


# ---- dispatch outcomes ----


class TransportFailureKind(str, enum.Enum):
    NETWORK_ERROR = "NetworkError"
    TIMEOUT = "Timeout"
    DNS_FAILURE = "DnsFailure"
    UNKNOWN = "Unknown"


class Success(BaseModel):
    kind: Literal["success"] = "success"
    status: int
    data: Any = None
    # Supplied by the proxy and passed through untouched.
    time: Union[int, float, str, None] = None
    size: Union[int, float, str, None] = None


class HttpError(BaseModel):
    kind: Literal["http_error"] = "http_error"
    status: int
    data: Any = None


class TransportFailure(BaseModel):
    kind: Literal["transport_failure"] = "transport_failure"
    failure: TransportFailureKind
    detail: str = ""


DispatchOutcome = Union[Success, HttpError, TransportFailure]


# ---- classified results ----


class Response(BaseModel):
    kind: Literal["response"] = "response"
    status: int
    data: Any = None
    time: Union[int, float, str, None] = None
    size: Union[int, float, str, None] = None


class ErrorReport(BaseModel):
    kind: Literal["error"] = "error"
    title: str
    message: str
    # Either the HTTP status code or a label such as "Timeout".
    status: Union[int, str]


ClassifiedResult = Union[Response, ErrorReport]


# ---- HTTP payloads ----


class SendRequest(RequestDraft):
    environment_id: Optional[int] = None
    user_id: Optional[str] = None


class HistoryItem(BaseModel):
    id: Union[int, str]
    url: str
    method: str
    created_at: Optional[str] = None


class SaveCollection(BaseModel):
    name: str = Field(min_length=1)
    user_id: str


class SaveCollectionItem(RequestDraft):
    collection_id: Union[int, str]
    name: str = Field(min_length=1)
    user_id: str


class VariableIn(BaseModel):
    key: str = ""
    value: str = ""
    enabled: bool = True


class SaveEnv(BaseModel):
    name: str = Field(min_length=1)
    # Rows with an empty key are dropped on save rather than rejected.
    variables: List[VariableIn] = []


class EnvOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: Optional[str] = None
    name: str
    variables: List[VariableBinding] = []
