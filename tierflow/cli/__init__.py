# tierflow/cli
