from particle_compressor.cli import main

raise SystemExit(main())
