"""
Unit tests for autofill field classification and profile ranking.

This module tests:
- Node classification from hints, visible text and input types
- Depth-first traversal across windows and cancellation
- Profile ranking and the low-confidence fallback
- The fill service: placeholder datasets and dataset authentication
"""

import pytest

from passtool.autofill import (
    TYPE_CLASS_NUMBER,
    TYPE_CLASS_TEXT,
    TYPE_NUMBER_VARIATION_PASSWORD,
    TYPE_TEXT_VARIATION_PASSWORD,
    TYPE_TEXT_VARIATION_VISIBLE_PASSWORD,
    TYPE_TEXT_VARIATION_WEB_PASSWORD,
    AssistStructure,
    AutofillService,
    CancellationSignal,
    FillCancelled,
    FillFailure,
    FillRequest,
    FillResponse,
    ViewNode,
    classify_node,
    find_fields,
    is_password_input,
    rank_profiles,
)
from passtool.config import Config
from passtool.derivation import derive
from passtool.models import CredentialProfile, FieldKind

TYPE_TEXT_VARIATION_URI = 0x10
TYPE_TEXT_VARIATION_EMAIL = 0x20


def login_form() -> ViewNode:
    return ViewNode(
        "root",
        children=(
            ViewNode("title", text="Sign in"),
            ViewNode(
                "form",
                children=(
                    ViewNode("user", hint="Email address"),
                    ViewNode("pass", input_type=TYPE_CLASS_TEXT | TYPE_TEXT_VARIATION_PASSWORD),
                ),
            ),
            ViewNode("submit", text="Log in"),
        ),
    )


class TestClassifyNode:
    """Test single-node classification."""

    def test_password_hint(self):
        assert classify_node(ViewNode("n", hint="password")) is FieldKind.PASSWORD

    def test_email_hint(self):
        assert classify_node(ViewNode("n", hint="email")) is FieldKind.USERNAME

    def test_neither(self):
        assert classify_node(ViewNode("n", hint="Search", text="hello")) is None

    def test_autofill_hints(self):
        assert classify_node(ViewNode("n", autofill_hints=frozenset({"username"}))) is FieldKind.USERNAME
        assert classify_node(ViewNode("n", autofill_hints=frozenset({"emailAddress"}))) is FieldKind.USERNAME
        assert classify_node(ViewNode("n", autofill_hints=frozenset({"password"}))) is FieldKind.PASSWORD

    def test_case_insensitive_text(self):
        assert classify_node(ViewNode("n", text="Your USERNAME")) is FieldKind.USERNAME
        assert classify_node(ViewNode("n", text="Enter Password")) is FieldKind.PASSWORD

    def test_localized_words(self):
        assert classify_node(ViewNode("n", hint="Käyttäjätunnus")) is FieldKind.USERNAME
        assert classify_node(ViewNode("n", hint="Salasana")) is FieldKind.PASSWORD

    def test_custom_words(self):
        node = ViewNode("n", hint="Kennwort")
        assert classify_node(node) is None
        assert classify_node(node, password_words=("kennwort",)) is FieldKind.PASSWORD

    def test_username_wins(self):
        node = ViewNode("n", hint="email or password")
        assert classify_node(node) is FieldKind.USERNAME

    @pytest.mark.parametrize(
        "input_type",
        [
            TYPE_CLASS_TEXT | TYPE_TEXT_VARIATION_PASSWORD,
            TYPE_CLASS_TEXT | TYPE_TEXT_VARIATION_VISIBLE_PASSWORD,
            TYPE_CLASS_TEXT | TYPE_TEXT_VARIATION_WEB_PASSWORD,
            TYPE_CLASS_NUMBER | TYPE_NUMBER_VARIATION_PASSWORD,
        ],
    )
    def test_password_input_types(self, input_type):
        assert is_password_input(input_type)
        assert classify_node(ViewNode("n", input_type=input_type)) is FieldKind.PASSWORD

    @pytest.mark.parametrize(
        "input_type",
        [0, TYPE_CLASS_TEXT, TYPE_CLASS_TEXT | TYPE_TEXT_VARIATION_URI, TYPE_CLASS_TEXT | TYPE_TEXT_VARIATION_EMAIL],
    )
    def test_non_password_input_types(self, input_type):
        assert not is_password_input(input_type)


class TestFindFields:
    """Test tree traversal."""

    def test_finds_login_fields_in_order(self):
        fields = find_fields(login_form())
        assert [(f.field_id, f.kind) for f in fields] == [
            ("user", FieldKind.USERNAME),
            ("pass", FieldKind.PASSWORD),
        ]

    def test_all_windows_scanned(self):
        structure = AssistStructure(
            "com.example",
            windows=(login_form(), ViewNode("w2", children=(ViewNode("pin", hint="password"),))),
        )
        assert [f.field_id for f in find_fields(structure)] == ["user", "pass", "pin"]

    def test_depth_first_pre_order(self):
        tree = ViewNode(
            "a",
            children=(
                ViewNode("b", hint="email", children=(ViewNode("c", hint="password"),)),
                ViewNode("d", hint="username"),
            ),
        )
        assert [f.field_id for f in find_fields(tree)] == ["b", "c", "d"]

    def test_empty_tree(self):
        assert find_fields(ViewNode("only")) == []

    def test_deep_tree_without_recursion_limit(self):
        node = ViewNode("leaf", hint="password")
        for i in range(5000):
            node = ViewNode(f"n{i}", children=(node,))
        assert [f.field_id for f in find_fields(node)] == ["leaf"]

    def test_cancellation(self):
        signal = CancellationSignal()
        signal.cancel()
        with pytest.raises(FillCancelled):
            find_fields(login_form(), signal)

    def test_from_dict(self):
        structure = AssistStructure.from_dict(
            {
                "package_name": "com.github.android",
                "windows": [
                    {
                        "id": 1,
                        "children": [
                            {"id": 2, "autofill_hints": ["username"]},
                            {"id": 3, "input_type": 0x81},
                        ],
                    }
                ],
            }
        )
        assert structure.package_name == "com.github.android"
        assert [(f.field_id, f.kind) for f in find_fields(structure)] == [
            ("2", FieldKind.USERNAME),
            ("3", FieldKind.PASSWORD),
        ]


class TestRankProfiles:
    """Test profile matching for an app identifier."""

    @pytest.fixture
    def profiles(self):
        return [
            CredentialProfile(title=f"Site {i}", website=f"site{i}.example", id=str(i))
            for i in range(8)
        ]

    def test_website_contains_identifier(self):
        p = CredentialProfile(title="GH", website="https://github.com", id="1")
        assert rank_profiles([p], "GITHUB") == [p]

    def test_identifier_contains_website(self):
        p = CredentialProfile(title="GH", website="github", id="1")
        assert rank_profiles([p], "com.github.android") == [p]

    def test_title_contains_identifier(self):
        p = CredentialProfile(title="My Slack workspace", id="1")
        assert rank_profiles([p], "slack") == [p]

    def test_empty_website_does_not_match_everything(self, profiles):
        blank = CredentialProfile(title="Blank", id="b")
        ranked = rank_profiles([blank] + profiles, "site3")
        assert [p.id for p in ranked] == ["3"]

    def test_fallback_first_five_in_given_order(self, profiles):
        ranked = rank_profiles(profiles, "com.unknown.app")
        assert [p.id for p in ranked] == ["0", "1", "2", "3", "4"]

    def test_fallback_limit(self, profiles):
        assert len(rank_profiles(profiles, "nothing", fallback_limit=2)) == 2

    def test_no_profiles(self):
        assert rank_profiles([], "anything") == []


class TestAutofillService:
    """Test fill requests end to end."""

    @pytest.fixture
    def service(self, populated_profiles):
        return AutofillService(populated_profiles)

    def request(self, package_name="github"):
        return FillRequest(AssistStructure(package_name, windows=(login_form(),)))

    def test_matching_profile_dataset(self, service):
        response = service.on_fill_request(self.request())
        assert isinstance(response, FillResponse)
        assert len(response.datasets) == 1
        dataset = response.datasets[0]
        assert dataset.title == "GitHub"
        assert dataset.subtitle == "github.com"
        assert dataset.values == {
            "user": Config.AUTOFILL_PLACEHOLDER,
            "pass": Config.AUTOFILL_PLACEHOLDER,
        }

    def test_no_secret_in_response(self, service):
        response = service.on_fill_request(self.request())
        assert "developer" not in repr(response.datasets[0].values)

    def test_fallback_order_is_most_recent_first(self, service):
        response = service.on_fill_request(self.request("org.unrelated"))
        assert [d.title for d in response.datasets] == ["Bank", "GitHub", "Gmail"]

    def test_missing_structure(self, service):
        assert service.on_fill_request(FillRequest(None)) == FillFailure("No structure found")

    def test_no_fields(self, service):
        request = FillRequest(AssistStructure("com.x", windows=(ViewNode("r"),)))
        assert service.on_fill_request(request) == FillFailure("No autofill fields found")

    def test_no_profiles(self, profile_repo):
        response = AutofillService(profile_repo).on_fill_request(self.request())
        assert response == FillFailure("No profiles found")

    def test_cancelled(self, service):
        signal = CancellationSignal()
        signal.cancel()
        assert service.on_fill_request(self.request(), signal) == FillFailure("Request cancelled")

    def test_save_not_supported(self, service):
        assert service.on_save_request(self.request()).message == "Save not supported"

    def test_authenticate_dataset(self, service):
        dataset = service.on_fill_request(self.request()).datasets[0]
        filled = service.authenticate_dataset(dataset.authentication, "test")
        assert filled.values == {
            "user": "developer",
            "pass": derive("test", 16),
        }
        assert "developer" not in repr(filled)

    def test_authenticate_blank_passphrase(self, service):
        dataset = service.on_fill_request(self.request()).datasets[0]
        with pytest.raises(ValueError):
            service.authenticate_dataset(dataset.authentication, "")

    def test_authenticate_deleted_profile(self, service, populated_profiles):
        dataset = service.on_fill_request(self.request()).datasets[0]
        populated_profiles.delete_profile(dataset.authentication.profile_id)
        assert service.authenticate_dataset(dataset.authentication, "test") is None
