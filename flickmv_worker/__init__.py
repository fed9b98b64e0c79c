"""Export worker: renders timelines to video and reports to the orchestration API."""
