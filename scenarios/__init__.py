# Badge Access System - Demo Scenarios
# Sample organization and walkthroughs of the rule engine

from .demo_data import load_demo_data
from .walkthrough import run_scenarios

__all__ = ['load_demo_data', 'run_scenarios']
