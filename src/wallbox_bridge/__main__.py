from wallbox_bridge.cli import main

raise SystemExit(main())
