from .client import MinistryPlatformClient, TokenSet  # noqa: F401
from .envelope import deep_parse_json, first_record, unwrap_procedure_result  # noqa: F401
from .errors import (  # noqa: F401
    EnvelopeError,
    MinistryPlatformAuthError,
    MinistryPlatformConfigError,
    MinistryPlatformError,
)
from .provider import MinistryPlatformProvider, get_provider  # noqa: F401
