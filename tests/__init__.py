"""objstore test suite.

Test organization:
- unit/test_storage_contract.py: behaviour shared by every built-in backend
- unit/test_storage_{filesystem,ftp,s3}.py: backend-specific behaviour
- unit/test_{registry,names,resolver,manager}.py: name and backend lookup
- unit/test_{config,env,cli,logging_config,errors,base}.py: supporting modules
"""
