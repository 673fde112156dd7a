"""Shared test fixtures: in-memory repositories and record builders."""
