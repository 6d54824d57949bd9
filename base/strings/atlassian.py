from base.core.strings import ValidatedStr

REGEX_UUID = r"[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}"

REGEX_PROJECT_KEY = r"[A-Z][A-Z0-9_]{1,9}"
REGEX_ISSUE_KEY = rf"{REGEX_PROJECT_KEY}-\d+"


class CloudId(ValidatedStr):
    """
    The opaque identifier of an Atlassian site, returned by the accessible
    resources endpoint and required to route OAuth requests through the
    `api.atlassian.com` gateway.
    """

    pattern = REGEX_UUID
    examples = ("1324a887-45db-1bf4-1e99-ef0ff456d421",)


class ProjectKey(ValidatedStr):
    """
    Interpolated as-is in JQL, hence restricted to the characters that Jira
    itself accepts in project keys.
    """

    pattern = REGEX_PROJECT_KEY
    examples = ("SUPPORT", "HELP2", "OPS_EU")


class IssueKey(ValidatedStr):
    """
    Format: "SUPPORT-142".
    """

    pattern = REGEX_ISSUE_KEY
    examples = ("SUPPORT-1", "HELP2-142")

    def project_key(self) -> ProjectKey:
        return ProjectKey.decode(self.rsplit("-", maxsplit=1)[0])
