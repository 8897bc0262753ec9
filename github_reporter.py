import logging

from github import Auth, Github

logger = logging.getLogger(__name__)

STATUS_CONTEXT = "lighthouse/performance"


class GitHubReporter(object):
    """
    Posts a run outcome to GitHub: a pull request comment and a commit status.
    Tokens and coordinates come from the CI environment (GITHUB_TOKEN, GITHUB_REPOSITORY, ...).
    """

    def __init__(self, arguments, report_builder, client=None):
        self.token = arguments['github_token']
        self.repository = arguments['github_repository']
        self.sha = arguments['github_sha']
        self.pr_number = arguments['pr_number']
        self.report_builder = report_builder
        self.client = client

    @property
    def configured(self):
        return bool(self.token and self.repository)

    def _repo(self):
        if self.client is None:
            self.client = Github(auth=Auth.Token(self.token))
        return self.client.get_repo(self.repository)

    def post(self, result):
        """Returns the list of things posted ('comment', 'status')."""
        if not self.configured:
            logger.warning("[GITHUB] GITHUB_TOKEN or GITHUB_REPOSITORY not set, skipping result posting")
            return []
        repo = self._repo()
        posted = []
        if self.pr_number:
            pr = repo.get_pull(int(self.pr_number))
            pr.create_issue_comment(self.report_builder.create_github_comment(result))
            logger.info(f"[GITHUB] Commented on PR #{self.pr_number}")
            posted.append("comment")
        if self.sha:
            failed = [record for record in result.records if not record["passed"]]
            state = "success" if result.passed else "failure"
            description = "All performance assertions passed" if result.passed \
                else f"{len(failed)} performance assertion(s) failed"
            repo.get_commit(self.sha).create_status(state=state, description=description, context=STATUS_CONTEXT)
            logger.info(f"[GITHUB] Set {STATUS_CONTEXT} status to {state} on {self.sha}")
            posted.append("status")
        return posted


def post_results(arguments, report_builder, result):
    """Best effort posting: a GitHub or network failure is logged and never changes the run outcome."""
    try:
        return GitHubReporter(arguments, report_builder).post(result)
    except Exception as e:
        logger.error(f"[GITHUB] Posting results failed: {type(e).__name__}: {e}")
        return []
