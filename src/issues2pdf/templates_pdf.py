TITLE = "#{number}: {title}"

OPENED_BY = "Opened by {login} on {date}"

LABELS = "Labels: {labels}"

STATUS = "Status: {state}"

LAST_UPDATED = "Last updated: {date}"

NO_DESCRIPTION = "No description provided."

SINGLE_ISSUE_FILENAME = "issue-{number}-{slug}.pdf"

BATCH_FILENAME = "github-issues-{date}.pdf"
