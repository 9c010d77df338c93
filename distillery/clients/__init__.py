"""Clients for the GitLab, HashiCorp and Homebrew release APIs."""