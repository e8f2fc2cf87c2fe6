"""Host probes — platform, hardware and package manager selection."""
