from flickmv_worker.worker_entrypoint import main

main()
