#!/usr/bin/env python3
"""
Test suite for all optimizers in the owlqn package.
"""

from owlqn.optimizers import OPTIMIZERS
from owlqn.utils import check_optimizer_annotations, check_optimizer_function


def test_registry_contents():
    assert 'minimize_owlqn' in OPTIMIZERS
    assert 'minimize_lbfgsb_split' in OPTIMIZERS


def test_all_optimizers():
    """Test all optimizers on a sample lasso problem."""
    optimizer_errors = []

    for optimizer_name, optimizer in OPTIMIZERS.items():
        try:
            check_optimizer_annotations(optimizer)
            check_optimizer_function(optimizer)

        except Exception as e:
            optimizer_errors.append((optimizer_name, str(e)))

    assert not optimizer_errors, f"Errors in optimizers: {optimizer_errors}"
