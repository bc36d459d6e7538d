"""
Run the metrics pipeline over commits that did not come from a local clone.

Any source that can produce commit mappings (an API export, a JSON dump, a database) can be
fed straight to GitAnalyzer.
"""

from gitspark import GitAnalyzer

commits = [
    {
        "hash": "a1b2c3d4",
        "author": "Alice",
        "author_email": "alice@example.com",
        "timestamp": "2024-03-04T09:00:00Z",
        "message": "feat: add parser",
        "files": [{"path": "src/parser.py", "status": "added", "insertions": 120, "deletions": 0}],
    },
    {
        "hash": "b2c3d4e5",
        "author": "Bob",
        "author_email": "bob@example.com",
        "timestamp": "2024-03-05T14:30:00Z",
        "message": "fix: handle empty input #12",
        "files": [
            {"path": "src/parser.py", "insertions": 8, "deletions": 3},
            {"path": "tests/test_parser.py", "status": "added", "insertions": 40, "deletions": 0},
        ],
    },
    {
        "hash": "c3d4e5f6",
        "author": "Alice",
        "author_email": "alice@example.com",
        "timestamp": "2024-03-09T22:15:00Z",
        "message": "wip",
        "files": [{"path": "src/parser.py", "insertions": 5, "deletions": 5}],
    },
]

if __name__ == "__main__":
    analyzer = GitAnalyzer({"trends_timezone": "UTC"}, version="example")
    report = analyzer.analyze(commits, generated_at="2024-03-10T00:00:00Z")

    print(report.daily_frame()[["commits", "gross_lines_changed", "out_of_hours_share"]])
    print(report.files_frame()[["commits", "churn", "risk_score", "hotspot_score"]])
    print(f"conventional commits: {report.governance.conventional_commits}/{report.governance.total_commits}")
    print(report.to_json()[:400])
