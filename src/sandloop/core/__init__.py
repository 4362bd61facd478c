"""Shared contracts: policy, tool schemas, results, conversation messages."""
