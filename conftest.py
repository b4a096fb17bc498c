import pytest
import subprocess
from git_code_stats import ProgressReporter


class FakeRunner:
    """Canned git output: the author list, plus one history per author"""

    def __init__(self, authors_output="", histories=None, errors=None):
        self.authors_output = authors_output
        self.histories = histories or {}
        self.errors = errors or {}
        self.calls = []

    def run(self, args, report_failure=True):
        self.calls.append(list(args))
        if args[0] == "rev-parse":
            return "true\n"
        author_args = [a for a in args if a.startswith("--author=")]
        if not author_args:
            return self.authors_output
        for author, history in self.histories.items():
            if author_args[0] == f"--author=^{author} <":
                if author in self.errors:
                    raise self.errors[author]
                return history
        return ""


@pytest.fixture
def quiet_reporter():
    return ProgressReporter(quiet=True)


@pytest.fixture
def sample_history():
    """Two alice commits in `git log --shortstat` layout, plus noise lines."""
    return (
        "commit 1f0c6a2b9e\n"
        "Author: alice <alice@example.com>\n"
        "Date:   Mon Nov 13 10:00:00 2023 +0000\n"
        "\n"
        "    add parser\n"
        "\n"
        " 3 files changed, 10 insertions(+), 2 deletions(-)\n"
        "\n"
        "commit 9a8b7c6d5e\n"
        "Author: alice <alice@example.com>\n"
        "Date:   Tue Nov 14 10:00:00 2023 +0000\n"
        "\n"
        "    fix typo\n"
        "\n"
        " 1 file changed, 1 insertion(+), 0 deletions(-)\n"
    )


@pytest.fixture
def fake_runner(sample_history):
    return FakeRunner(
        authors_output="bob\nalice\nbob\n\n",
        histories={
            "alice": sample_history,
            "bob": " 2 files changed, 7 insertions(+)\n",
        },
    )


@pytest.fixture
def git_repo(tmp_path):
    repo = tmp_path / "repo"
    repo.mkdir()

    def run(*args):
        subprocess.run(["git", "-C", str(repo)] + list(args),
                       check=True, capture_output=True)

    run("init")
    run("config", "user.email", "tester@test.com")
    run("config", "user.name",  "Tester")
    run("config", "commit.gpgsign", "false")

    # Commit 1 (Tester): add two one-line files
    (repo / "app.py").write_text("print('hello')\n", encoding='utf-8')
    (repo / "lib.py").write_text("def helper(): pass\n", encoding='utf-8')
    run("add", ".")
    run("commit", "-m", "initial")

    # Commit 2 (Tester): append to app, rewrite lib
    (repo / "app.py").write_text("print('hello')\nprint('world')\n", encoding='utf-8')
    (repo / "lib.py").write_text("def helper(): return 1\n", encoding='utf-8')
    run("add", ".")
    run("commit", "-m", "update both")

    # Commit 3 (Bob): add readme
    (repo / "readme.md").write_text("# App\n", encoding='utf-8')
    run("add", ".")
    run("-c", "user.name=Bob", "-c", "user.email=bob@test.com",
        "commit", "-m", "add readme")

    return str(repo)


@pytest.fixture
def empty_git_repo(tmp_path):
    repo = tmp_path / "empty"
    repo.mkdir()
    subprocess.run(["git", "-C", str(repo), "init"], check=True, capture_output=True)
    return str(repo)
