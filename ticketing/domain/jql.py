from base.strings.atlassian import ProjectKey

JQL_SPECIAL_CHARS: tuple[str, ...] = (
    "\\",
    '"',
    "'",
    "[",
    "]",
    "{",
    "}",
    "(",
    ")",
    "+",
    "-",
    "&",
    "|",
    "!",
    "^",
    "~",
    "*",
    "?",
    ":",
)
"""
The characters escaped in JQL text values, in order: the backslash comes first
so that the escapes added afterwards are not themselves escaped again.
"""


def escape_jql_text(value: str) -> str:
    """
    Escape a value before interpolating it into a quoted JQL string, so that
    inputs such as `") OR (1=1` cannot alter the structure of the clause.
    """
    for char in JQL_SPECIAL_CHARS:
        value = value.replace(char, f"\\{char}")
    return value


def build_user_tickets_jql(
    project_key: ProjectKey,
    user_id: str,
    username: str | None = None,
) -> str:
    """
    Find the tickets whose description mentions the user, newest first.  The
    trailer appended by `create_request` carries both values.
    """
    # Project keys cannot be quoted in JQL, hence validated rather than escaped.
    project_key = ProjectKey.decode(project_key)

    clauses = [f'description ~ "{escape_jql_text(user_id)}"']
    if username:
        clauses.append(f'description ~ "{escape_jql_text(username)}"')

    return (
        f"project = {project_key} AND ({' OR '.join(clauses)}) ORDER BY created DESC"
    )
