from gitops_deploy.cli import main

raise SystemExit(main())
