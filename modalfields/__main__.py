from modalfields.cli import main

raise SystemExit(main())
