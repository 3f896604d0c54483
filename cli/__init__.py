# Badge Access System - Command Line Interface
