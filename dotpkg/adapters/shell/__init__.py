"""Process execution — blocking and streaming command runners."""
