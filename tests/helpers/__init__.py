"""Test helpers: model factories, provider fakes and fixture loaders."""
