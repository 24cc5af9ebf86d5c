"""deploy_api — REST entry point that records and deploys trading agents."""
