"""Autofill matching: classify fields in a foreign view tree, rank profiles.

The matcher only reads the tree and the profile snapshot it is handed, so a
request can be abandoned at any point without side effects. Datasets carry a
placeholder value for every field; the real password is derived only after
the user authenticates the chosen dataset with their passphrase.
"""

import logging
import threading
from dataclasses import dataclass, field
from typing import Iterable, Iterator, List, Optional, Sequence, Tuple, Union

from .config import Config
from .derivation import derive_for_profile
from .models import AutofillFieldDescriptor, CredentialProfile, FieldKind

logger = logging.getLogger(__name__)

# Android InputType bits
TYPE_MASK_CLASS = 0x0000000F
TYPE_MASK_VARIATION = 0x00000FF0
TYPE_CLASS_TEXT = 0x00000001
TYPE_CLASS_NUMBER = 0x00000002
TYPE_TEXT_VARIATION_PASSWORD = 0x00000080
TYPE_TEXT_VARIATION_VISIBLE_PASSWORD = 0x00000090
TYPE_TEXT_VARIATION_WEB_PASSWORD = 0x000000E0
TYPE_NUMBER_VARIATION_PASSWORD = 0x00000010

TEXT_PASSWORD_VARIATIONS = frozenset(
    {
        TYPE_TEXT_VARIATION_PASSWORD,
        TYPE_TEXT_VARIATION_VISIBLE_PASSWORD,
        TYPE_TEXT_VARIATION_WEB_PASSWORD,
    }
)

USERNAME_HINTS = frozenset({"username", "emailaddress"})
PASSWORD_HINTS = frozenset({"password"})


class FillCancelled(Exception):
    """Raised when the platform cancels a fill request mid-traversal."""


class CancellationSignal:
    """Thread-safe cancellation flag set by the platform."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()


@dataclass(frozen=True)
class ViewNode:
    """Read-only node of a foreign view hierarchy."""

    node_id: str
    autofill_hints: frozenset = frozenset()
    hint: Optional[str] = None
    text: Optional[str] = None
    input_type: int = 0
    children: Tuple["ViewNode", ...] = ()

    @classmethod
    def from_dict(cls, data: dict) -> "ViewNode":
        """Build a tree from a JSON-style dump."""
        return cls(
            node_id=str(data["id"]),
            autofill_hints=frozenset(data.get("autofill_hints") or ()),
            hint=data.get("hint"),
            text=data.get("text"),
            input_type=int(data.get("input_type", 0)),
            children=tuple(cls.from_dict(c) for c in data.get("children", ())),
        )


@dataclass(frozen=True)
class AssistStructure:
    """Snapshot of a foreign activity: its windows and owning package."""

    package_name: str
    windows: Tuple[ViewNode, ...] = ()

    @classmethod
    def from_dict(cls, data: dict) -> "AssistStructure":
        return cls(
            package_name=data.get("package_name", ""),
            windows=tuple(ViewNode.from_dict(w) for w in data.get("windows", ())),
        )


def is_password_input(input_type: int) -> bool:
    """Whether input-type flags denote a password-variant field."""
    cls = input_type & TYPE_MASK_CLASS
    variation = input_type & TYPE_MASK_VARIATION
    if cls == TYPE_CLASS_TEXT:
        return variation in TEXT_PASSWORD_VARIATIONS
    if cls == TYPE_CLASS_NUMBER:
        return variation == TYPE_NUMBER_VARIATION_PASSWORD
    return False


def _mentions(node: ViewNode, words: Iterable[str]) -> bool:
    haystacks = [s.lower() for s in (node.hint, node.text) if s]
    return any(word in h for word in words for h in haystacks)


def classify_node(
    node: ViewNode,
    username_words: Sequence[str] = Config.USERNAME_WORDS,
    password_words: Sequence[str] = Config.PASSWORD_WORDS,
) -> Optional[FieldKind]:
    """Classify a single node; the username check wins over password."""
    hints = {h.lower() for h in node.autofill_hints}

    if hints & USERNAME_HINTS or _mentions(node, username_words):
        return FieldKind.USERNAME

    if (
        hints & PASSWORD_HINTS
        or is_password_input(node.input_type)
        or _mentions(node, password_words)
    ):
        return FieldKind.PASSWORD

    return None


def iter_nodes(root: ViewNode) -> Iterator[ViewNode]:
    """Depth-first pre-order walk without recursion."""
    stack = [root]
    while stack:
        node = stack.pop()
        yield node
        stack.extend(reversed(node.children))


def find_fields(
    source: Union[AssistStructure, ViewNode],
    cancel: Optional[CancellationSignal] = None,
    username_words: Sequence[str] = Config.USERNAME_WORDS,
    password_words: Sequence[str] = Config.PASSWORD_WORDS,
) -> List[AutofillFieldDescriptor]:
    """Collect every username/password field in the tree, in traversal order.

    Raises:
        FillCancelled: If ``cancel`` is set during the walk.
    """
    roots = source.windows if isinstance(source, AssistStructure) else (source,)
    fields: List[AutofillFieldDescriptor] = []

    for root in roots:
        for node in iter_nodes(root):
            if cancel is not None and cancel.is_cancelled:
                raise FillCancelled("Fill request cancelled")
            kind = classify_node(node, username_words, password_words)
            if kind is not None:
                fields.append(AutofillFieldDescriptor(node.node_id, kind))

    return fields


def matches_app(profile: CredentialProfile, app_identifier: str) -> bool:
    ident = app_identifier.lower()
    website = (profile.website or "").lower()
    return (
        ident in website
        or ident in profile.title.lower()
        or (bool(website) and website in ident)
    )


def rank_profiles(
    profiles: Sequence[CredentialProfile],
    app_identifier: str,
    fallback_limit: int = Config.AUTOFILL_FALLBACK_LIMIT,
) -> List[CredentialProfile]:
    """Profiles matching the app, else the first ``fallback_limit`` as given.

    The fallback is a low-confidence convenience: it keeps the order of
    ``profiles`` (the store lists most recently updated first).
    """
    matching = [p for p in profiles if matches_app(p, app_identifier)]
    if matching:
        return matching
    return list(profiles[:fallback_limit])


@dataclass(frozen=True)
class AuthenticationHandle:
    """Ties a dataset to the profile that must be unlocked to fill it."""

    profile_id: str
    fields: Tuple[AutofillFieldDescriptor, ...]


@dataclass(frozen=True)
class Dataset:
    title: str
    subtitle: str
    values: dict
    authentication: AuthenticationHandle


@dataclass(frozen=True)
class FillResponse:
    datasets: List[Dataset] = field(default_factory=list)


@dataclass(frozen=True)
class FillFailure:
    message: str


@dataclass(frozen=True)
class FillRequest:
    structure: Optional[AssistStructure]


@dataclass(frozen=True)
class FilledCredentials:
    """Values to put into the form once the dataset is authenticated."""

    values: dict

    def __repr__(self) -> str:
        return f"FilledCredentials(fields={sorted(self.values)})"


def build_dataset(
    profile: CredentialProfile, fields: Sequence[AutofillFieldDescriptor]
) -> Dataset:
    return Dataset(
        title=profile.title,
        subtitle=profile.website or "No website",
        values={f.field_id: Config.AUTOFILL_PLACEHOLDER for f in fields},
        authentication=AuthenticationHandle(profile.id or "", tuple(fields)),
    )


class AutofillService:
    """Answers fill requests with placeholder datasets.

    ``profiles`` is any object with ``list_profiles()`` and
    ``get_profile(id)``, normally a :class:`passtool.repository.ProfileRepository`.
    """

    def __init__(self, profiles, fallback_limit: int = Config.AUTOFILL_FALLBACK_LIMIT):
        self.profiles = profiles
        self.fallback_limit = fallback_limit

    def on_fill_request(
        self, request: FillRequest, cancel: Optional[CancellationSignal] = None
    ) -> Union[FillResponse, FillFailure]:
        structure = request.structure
        if structure is None:
            logger.warning("Fill request without structure")
            return FillFailure("No structure found")

        try:
            fields = find_fields(structure, cancel)
        except FillCancelled:
            logger.info("Fill request for %s cancelled", structure.package_name)
            return FillFailure("Request cancelled")

        if not fields:
            logger.debug("No autofill fields in %s", structure.package_name)
            return FillFailure("No autofill fields found")

        logger.debug("Found %d autofill fields in %s", len(fields), structure.package_name)

        snapshot = self.profiles.list_profiles()
        ranked = rank_profiles(snapshot, structure.package_name, self.fallback_limit)
        if not ranked:
            return FillFailure("No profiles found")

        if cancel is not None and cancel.is_cancelled:
            return FillFailure("Request cancelled")

        return FillResponse([build_dataset(p, fields) for p in ranked])

    def on_save_request(self, request: FillRequest) -> FillFailure:
        return FillFailure("Save not supported")

    def authenticate_dataset(
        self, handle: AuthenticationHandle, passphrase: str
    ) -> Optional[FilledCredentials]:
        """Derive the real values for a chosen dataset.

        Returns None if the profile no longer exists.

        Raises:
            ValueError: If the passphrase is blank.
        """
        profile = self.profiles.get_profile(handle.profile_id)
        if profile is None:
            return None

        password = derive_for_profile(profile, passphrase)
        values = {}
        for f in handle.fields:
            values[f.field_id] = (
                profile.username if f.kind is FieldKind.USERNAME else password
            )
        return FilledCredentials(values)
