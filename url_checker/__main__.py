from url_checker.cli import main

raise SystemExit(main())
