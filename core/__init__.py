# Badge Access System - Core Modules
# Identity-code rules, default access assignment, and the lifecycle layer
# that invokes them after every employee mutation.
#
# Submodules are imported explicitly (core.rule_engine, core.lifecycle, ...)
# because models.database reads core.config at import time.
