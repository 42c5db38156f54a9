import pytest

from upload2dir.auth import ANONYMOUS_USER_NAME, Action, Authorizer, parse_user_lines
from upload2dir.errors import AccessDenied
from tests.consts import TEST_USER_LINES


def test_parse_user_lines__builds_table():
    users = parse_user_lines(TEST_USER_LINES)

    assert set(users) == {"tok1", "tok2"}
    assert users["tok1"].name == "alice"
    assert users["tok1"].permitted_actions == {"put_file"}
    assert users["tok2"].permitted_actions == {"create_dir", "delete_file", "put_file"}


def test_parse_user_lines__skips_malformed_lines():
    users = parse_user_lines(["", "justtoken", "tok:name", ":nobody:put_file", "tok3:carol:put_file"])

    assert list(users) == ["tok3"]


def test_parse_user_lines__last_duplicate_wins():
    users = parse_user_lines(["tok1:alice:put_file", "tok1:mallory:delete_file"])

    assert users["tok1"].name == "mallory"
    assert users["tok1"].permitted_actions == {"delete_file"}


def test_parse_user_lines__ignores_unknown_verbs():
    users = parse_user_lines(["tok1:alice:put_file/format_disk"])

    assert users["tok1"].permitted_actions == {"put_file"}


def test_parse_user_lines__table_is_read_only():
    users = parse_user_lines(TEST_USER_LINES)

    with pytest.raises(TypeError):
        users["tok9"] = users["tok1"]


def test_authorize__permitted_action():
    authorizer = Authorizer(TEST_USER_LINES)

    user = authorizer.authorize("tok1", Action.PUT_FILE)

    assert user.name == "alice"


@pytest.mark.parametrize(
    "token, action",
    [
        ("unknown", Action.PUT_FILE),
        ("", Action.PUT_FILE),
        (None, Action.PUT_FILE),
        ("tok1", Action.DELETE_FILE),
        ("tok1", Action.CREATE_DIR),
    ],
)
def test_authorize__denied(token, action):
    authorizer = Authorizer(TEST_USER_LINES)

    with pytest.raises(AccessDenied):
        authorizer.authorize(token, action)


def test_authorize__denials_do_not_reveal_the_reason():
    authorizer = Authorizer(TEST_USER_LINES)
    messages = set()
    for token in ("unknown", None, "tok1"):
        with pytest.raises(AccessDenied) as exc_info:
            authorizer.authorize(token, Action.DELETE_FILE)
        messages.add(exc_info.value.message)

    assert len(messages) == 1


def test_authorize__disabled_without_user_table():
    authorizer = Authorizer()

    user = authorizer.authorize(None, Action.DELETE_FILE)

    assert not authorizer.enabled
    assert user.name == ANONYMOUS_USER_NAME


def test_authorize__explicitly_enabled_without_users_denies_everyone():
    authorizer = Authorizer(enabled=True)

    with pytest.raises(AccessDenied):
        authorizer.authorize("tok1", Action.PUT_FILE)


def test_authorize__explicitly_disabled_ignores_user_table():
    authorizer = Authorizer(TEST_USER_LINES, enabled=False)

    assert authorizer.authorize("whatever", Action.CREATE_DIR).name == ANONYMOUS_USER_NAME


def test_reload__replaces_table():
    authorizer = Authorizer(TEST_USER_LINES)

    authorizer.reload(["tok9:zoe:delete_file"])

    assert authorizer.authorize("tok9", Action.DELETE_FILE).name == "zoe"
    with pytest.raises(AccessDenied):
        authorizer.authorize("tok2", Action.PUT_FILE)
