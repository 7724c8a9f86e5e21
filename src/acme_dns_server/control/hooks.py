"""
ACME Challenge Hooks

The control plane receives challenge lifecycle events from the reverse proxy
performing certificate issuance and turns them into record store mutations:

- ``add``: publish the key authorization at ``_acme-challenge.<domain>.``
- ``remove``: withdraw it again

Requests are parsed into a typed ``HookRequest`` and validated once, before
any mutation is attempted.
"""

from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

from ..core.store import RecordStore
from ..dns_logging import get_logger
from ..exceptions import HookValidationError

logger = get_logger("control_plane")

CHALLENGE_LABEL = "_acme-challenge"

HOOK_ADD = "add"
HOOK_REMOVE = "remove"
SUPPORTED_HOOKS = (HOOK_ADD, HOOK_REMOVE)

# Largest key authorization accepted for publishing, in UTF-8 bytes
MAX_KEYAUTH_LENGTH = 4096

# Parameter names as sent by the reverse proxy
PARAM_HOOK = "ACME_HOOK"
PARAM_DOMAIN = "ACME_DOMAIN"
PARAM_KEYAUTH = "ACME_KEYAUTH"
PARAM_CLIENT = "ACME_CLIENT"
PARAM_CHALLENGE = "ACME_CHALLENGE"
PARAM_TOKEN = "ACME_TOKEN"


def base_domain(domain: str) -> str:
    """Identifier without surrounding dots or a leading wildcard label.

    A wildcard identifier validates at the base domain, so ``*.`` is dropped.
    """
    domain = domain.strip().strip(".")
    if domain.startswith("*."):
        domain = domain[2:]
    return domain


def challenge_name(domain: str) -> str:
    """Absolute name of the dns-01 challenge record for ``domain``."""
    return f"{CHALLENGE_LABEL}.{base_domain(domain)}."


def _param(params: Mapping[str, Any], name: str) -> str:
    value = params.get(name)
    if value is None:
        return ""
    return str(value).strip()


@dataclass(frozen=True)
class HookRequest:
    """A challenge hook call.

    ``hook`` and ``domain`` are always required, ``keyauth`` only for
    ``add``. ``client``, ``challenge`` and ``token`` are informational and
    only logged.
    """

    hook: str
    domain: str
    keyauth: str = ""
    client: Optional[str] = None
    challenge: Optional[str] = None
    token: Optional[str] = None

    @classmethod
    def from_params(cls, params: Mapping[str, Any]) -> "HookRequest":
        """Build a request from gateway parameters."""
        return cls(
            hook=_param(params, PARAM_HOOK),
            domain=_param(params, PARAM_DOMAIN),
            keyauth=_param(params, PARAM_KEYAUTH),
            client=_param(params, PARAM_CLIENT) or None,
            challenge=_param(params, PARAM_CHALLENGE) or None,
            token=_param(params, PARAM_TOKEN) or None,
        )

    def validate(self) -> None:
        """Raise HookValidationError unless the request can be applied."""
        if not self.hook or not self.domain:
            raise HookValidationError(f"{PARAM_HOOK} and {PARAM_DOMAIN} are required")

        if self.hook not in SUPPORTED_HOOKS:
            raise HookValidationError(f"Unknown hook: {self.hook}")

        if not base_domain(self.domain):
            raise HookValidationError(f"Invalid {PARAM_DOMAIN}: {self.domain}")

        if self.hook == HOOK_ADD and not self.keyauth:
            raise HookValidationError(f"{PARAM_KEYAUTH} is required for add hook")

        keyauth_size = len(self.keyauth.encode("utf-8"))
        if self.hook == HOOK_ADD and keyauth_size > MAX_KEYAUTH_LENGTH:
            raise HookValidationError(
                f"{PARAM_KEYAUTH} exceeds {MAX_KEYAUTH_LENGTH} bytes"
            )


@dataclass(frozen=True)
class HookResult:
    """Outcome reported back to the hook caller."""

    success: bool
    message: str
    status: int = 200
    record_name: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {
            "status": "success" if self.success else "error",
            "message": self.message,
        }
        if self.record_name is not None:
            result["record"] = self.record_name
        return result


class ControlPlane:
    """Applies validated hook requests to the record store."""

    def __init__(self, store: RecordStore):
        self.store = store

    def handle(self, request: HookRequest) -> HookResult:
        """Validate then apply ``request``; rejected requests never mutate."""
        logger.info(
            "ACME hook received",
            hook=request.hook,
            domain=request.domain,
            client=request.client,
            challenge=request.challenge,
            token=request.token,
        )

        try:
            request.validate()
        except HookValidationError as e:
            logger.warning(
                "ACME hook rejected",
                hook=request.hook,
                domain=request.domain,
                reason=e.message,
            )
            return HookResult(success=False, message=e.message, status=e.status)

        name = challenge_name(request.domain)

        if request.hook == HOOK_ADD:
            self.store.set(name, request.keyauth)
            message = f"TXT record added: {name} -> {request.keyauth}"
        else:
            self.store.clear(name)
            message = f"TXT record removed: {name}"

        logger.info("ACME hook applied", hook=request.hook, record=name)
        return HookResult(success=True, message=message, record_name=name)

    def handle_params(self, params: Mapping[str, Any]) -> HookResult:
        """Parse gateway parameters and handle the resulting request."""
        return self.handle(HookRequest.from_params(params))
